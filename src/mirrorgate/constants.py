PROXY_ERROR_HEADER = "X-MirrorGate-Error"
CORRELATION_ID_HEADER = "X-Correlation-ID"

REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}

# Headers added by the hosting edge network that reveal the request was relayed.
EDGE_REQUEST_HEADERS = frozenset({
    "cf-connecting-ip",
    "cf-ray",
    "cf-ipcountry",
    "cf-visitor",
    "cf-worker",
    "cdn-loop",
    "x-forwarded-for",
    "x-forwarded-proto",
    "x-forwarded-host",
    "x-real-ip",
    "forwarded",
})

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "transfer-encoding",
})

SECURITY_RESPONSE_HEADERS = frozenset({
    "content-security-policy",
    "x-frame-options",
    "x-content-type-options",
})

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
