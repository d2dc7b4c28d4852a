"""
backoffice_modules -- facades over the kernel for the inventory and staff
document areas.

Each facade owns its transaction boundary: kernel services flush, the
facade commits on success and rolls back on failure.  Policies from
``backoffice_config`` are passed into the kernel here.
"""
