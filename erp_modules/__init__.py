"""
ERP business modules (``erp_modules``).

Responsibility
--------------
Document workflows that move stock through the kernel: sales orders,
bills of materials, production orders, warehouse transfers and direct
stock operations.

Architecture
------------
Layer: **Modules**.  Each module has the same shape:

- ``models.py``    -- frozen DTOs and status enums (no I/O)
- ``orm.py``       -- TrackedBase persistence models with ``to_dto``
- ``workflows.py`` -- the document state machine
- ``config.py``    -- numbering and policy settings
- ``service.py``   -- orchestration; each public method owns its
  transaction (commit on success, rollback and re-raise on failure)

Modules import from ``erp_kernel``; the kernel never imports modules
(apart from the ORM registry used by ``create_tables``).
"""
