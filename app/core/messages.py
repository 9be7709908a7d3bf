"""
User-facing message catalog.

Every string a client can see lives here so that wording stays
consistent between services, dependencies and exception handlers.  The
platform is Spanish-speaking; log lines stay in English.
"""

# ── Validation ───────────────────────────────────────────────────────
VALIDATION_ERRORS = "Errores de validación"
PHONE_REQUIRED = "El número de teléfono es requerido"
SEARCH_QUERY_REQUIRED = "Query de búsqueda requerido"

# ── Registration / login ─────────────────────────────────────────────
DUPLICATE_PREFIX = "Ya existe un usuario con "
DUPLICATE_EMAIL = DUPLICATE_PREFIX + "este email"
DUPLICATE_USERNAME = DUPLICATE_PREFIX + "este nombre de usuario"
DUPLICATE_PHONE = DUPLICATE_PREFIX + "este número de teléfono"
REGISTERED = "Usuario registrado exitosamente"
INVALID_CREDENTIALS = "Credenciales inválidas"
LOGGED_IN = "Inicio de sesión exitoso"
LOGGED_OUT = "Cierre de sesión exitoso"
CONCURRENT_LOGIN = "Otro inicio de sesión está en curso para esta cuenta. Inténtalo de nuevo."

# ── Auth gate ────────────────────────────────────────────────────────
NO_TOKEN = "No hay token, autorización denegada"
INVALID_TOKEN = "Token no válido"
SESSION_INVALID = "Sesión expirada o inválida"
ADMIN_REQUIRED = "Acceso denegado. Se requiere rol de administrador."
INSUFFICIENT_PERMISSIONS = "No tienes permisos para acceder a este recurso"

# ── Admin ────────────────────────────────────────────────────────────
USER_NOT_FOUND = "Usuario no encontrado"
PERMISSIONS_UPDATED = "Permisos actualizados correctamente"
USER_ACTIVATED = "Usuario activado correctamente"
USER_DEACTIVATED = "Usuario desactivado correctamente"
LOGGED_OUT_ALL = "Usuario desconectado de todos los dispositivos"
USER_DELETED = "Usuario eliminado correctamente"

# ── Generic ──────────────────────────────────────────────────────────
SERVER_ERROR = "Error del servidor"
ROUTE_NOT_FOUND = "Ruta no encontrada"
