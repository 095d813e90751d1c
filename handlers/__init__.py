# =============================================================================
# Handlers Package
# =============================================================================
# Route and action handlers registered into nimble.runtime.dispatch:
#
#   connections     $connect / $disconnect, connection lookups
#   messaging       sendMessage / fetchMessages / ping / $default
#   broadcast       direct-invoke fan-out to a user's sockets
#   api_routes      GET / and GET /api/health
#   whatsapp_oauth  POST /api/whatsapp/exchange-code
#
# Support modules: base, push, backend, integrations.
# =============================================================================
