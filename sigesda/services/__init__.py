# Sigesda Services Package
from sigesda.services.base import BaseService, Resultado
from sigesda.services.cuotas_service import CuotasService

__all__ = ['BaseService', 'CuotasService', 'Resultado']
