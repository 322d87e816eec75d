"""
Shared building blocks for the billing app.

Import from the submodules directly: ``core.models`` (timestamped base
model), ``core.exceptions`` (error hierarchy the API views render),
``core.services`` (BaseService, ServiceResult), ``core.helpers`` and
``core.views`` (health check). Models are kept out of this module so it
can be imported before the app registry is ready.
"""
