"""
Servicios de aplicacion del sync.
"""
