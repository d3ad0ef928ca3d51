"""
Utility helpers shared across DirconLab: numeric constants and CasADi conversions.
"""
