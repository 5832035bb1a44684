"""
Servicios de aplicacion.

Componentes del motor de reconciliacion: paginador, tabla de ganadores,
resolucion de identidad y escritura en lote.
"""
