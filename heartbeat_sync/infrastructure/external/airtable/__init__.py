"""
Integración con Airtable (tabla destino de la reconciliación).
"""
