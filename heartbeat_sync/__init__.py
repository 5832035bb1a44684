"""
Pipeline de reconciliación one-way: PostgreSQL (heartbeats) -> Airtable.

Este paquete está diseñado para ejecutarse como job (cron / task scheduler).

Objetivos de diseño:
- Incremental: recorre los agregados por usuario en páginas de tamaño fijo.
- Resolución de identidad: id de usuario primero, email como fallback.
- "Latest wins": si varios usuarios comparten email, gana el de actividad más reciente.
- Tolerancia a fallos parciales: un lote fallido no aborta la corrida,
  solo la marca como degradada (exit code 1).
"""

__version__ = "1.0.0"
