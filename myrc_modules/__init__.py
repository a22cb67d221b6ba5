"""
Line-level modules of myRC.

Each package (funding, spending, procurement, training, travel) carries
``models.py`` (frozen DTOs and enums), ``orm.py`` (SQLAlchemy tables) and
``service.py`` (operations scoped to a responsibility centre and fiscal
year).  Modules depend on ``myrc_kernel``; the kernel never imports them,
except through ``_orm_registry`` when creating tables.
"""
