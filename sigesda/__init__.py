# SIGESDA core: dues ledger, ajuste/exención resolver and schedule conflicts
__version__ = "1.0.0"
