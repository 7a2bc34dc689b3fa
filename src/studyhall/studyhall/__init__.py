"""Study-hall core package.

This package is organized by feature modules (attendance, membership, fees, ...)
with SOLID service/repository layers. HTTP routing and rendering live outside.
"""
