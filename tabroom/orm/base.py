"""
tabroom/orm/base.py
Declarative base for all ORM models
"""
from sqlalchemy.orm import declarative_base

Base = declarative_base()
