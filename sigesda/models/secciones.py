"""
Seccion Models

Weekly schedules, docente/aula assignments and enrollment snapshots used by
the schedule conflict detector.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import Field, field_validator

from sigesda.models.cuotas import CamelModel


class DiaSemana(str, Enum):
    LUNES = "LUNES"
    MARTES = "MARTES"
    MIERCOLES = "MIERCOLES"
    JUEVES = "JUEVES"
    VIERNES = "VIERNES"
    SABADO = "SABADO"
    DOMINGO = "DOMINGO"


DIAS_LABEL = {
    DiaSemana.LUNES: "Lunes",
    DiaSemana.MARTES: "Martes",
    DiaSemana.MIERCOLES: "Miércoles",
    DiaSemana.JUEVES: "Jueves",
    DiaSemana.VIERNES: "Viernes",
    DiaSemana.SABADO: "Sábado",
    DiaSemana.DOMINGO: "Domingo",
}


class EstadoOcupacion(str, Enum):
    DISPONIBLE = "DISPONIBLE"
    PARCIAL = "PARCIAL"
    CASI_LLENA = "CASI_LLENA"
    LLENA = "LLENA"


class NivelProyeccion(str, Enum):
    BAJO = "BAJO"
    MEDIO = "MEDIO"
    ALTO = "ALTO"
    CRITICO = "CRITICO"


class TipoConflicto(str, Enum):
    DOCENTE = "DOCENTE"
    AULA = "AULA"


class HorarioInput(CamelModel):
    dia_semana: DiaSemana
    hora_inicio: str
    hora_fin: str
    activo: bool = True

    @field_validator("dia_semana", mode="before")
    @classmethod
    def _v_dia(cls, v):
        return str(v or "").strip().upper() if isinstance(v, str) else v


class HorarioSeccion(HorarioInput):
    id: Optional[str] = None
    seccion_id: Optional[str] = None


class DocenteSeccion(CamelModel):
    id: str
    nombre: str = ""
    apellido: str = ""
    especialidad: Optional[str] = None

    @property
    def nombre_completo(self) -> str:
        return f"{self.nombre} {self.apellido}".strip()


class Seccion(CamelModel):
    id: Optional[str] = None
    actividad_id: Optional[str] = None
    nombre: str
    capacidad_maxima: Optional[int] = Field(default=None, ge=1)
    docentes: List[DocenteSeccion] = Field(default_factory=list)
    horarios: List[HorarioSeccion] = Field(default_factory=list)
    participaciones: int = Field(default=0, ge=0)


class ParticipacionSeccion(CamelModel):
    id: Optional[str] = None
    persona_id: str
    seccion_id: str
    fecha_inicio: date
    fecha_fin: Optional[date] = None
    precio_especial: Optional[Decimal] = None
    activa: bool = True


class AsignacionHorario(CamelModel):
    """An existing docente or aula booking on some section's horario."""
    seccion_id: Optional[str] = None
    seccion_nombre: str = ""
    actividad_nombre: str = ""
    dia_semana: DiaSemana
    hora_inicio: str
    hora_fin: str
    docente_id: Optional[str] = None
    docente_nombre: Optional[str] = None
    aula_id: Optional[str] = None
    aula_nombre: Optional[str] = None
    activo: bool = True


class CandidatoHorario(CamelModel):
    seccion_id: Optional[str] = None
    dia_semana: DiaSemana
    hora_inicio: str
    hora_fin: str
    docente_id: Optional[str] = None
    aula_id: Optional[str] = None


class DetalleConflicto(CamelModel):
    seccion_id: Optional[str] = None
    seccion_nombre: str = ""
    actividad_nombre: str = ""
    dia_semana: DiaSemana
    hora_inicio: str
    hora_fin: str
    docente: Optional[str] = None
    aula: Optional[str] = None


class ConflictoHorario(CamelModel):
    tipo: TipoConflicto
    mensaje: str
    detalles: DetalleConflicto


class SolapamientoHorario(CamelModel):
    """Two horarios of the same list overlapping on the same day."""
    indices: Tuple[int, int]
    dia_semana: DiaSemana
    mensaje: str


class VerificarConflictosResponse(CamelModel):
    tiene_conflictos: bool
    conflictos: List[ConflictoHorario] = Field(default_factory=list)


class Ocupacion(CamelModel):
    participantes: int
    capacidad_maxima: Optional[int] = None
    porcentaje: Optional[int] = None
    estado: EstadoOcupacion
    disponibles: Optional[int] = None


class ProyeccionCupo(CamelModel):
    cupo_actual: int
    cupo_maximo: int
    cupo_proyectado: int
    porcentaje_actual: Decimal
    porcentaje_proyectado: Decimal
    cupos_restantes: int
    excede_capacidad: bool
    nivel: NivelProyeccion
