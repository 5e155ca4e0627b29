"""Capa de edición: estado, historial, gestor de estructuras y comandos."""
