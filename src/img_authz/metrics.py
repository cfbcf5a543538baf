from prometheus_client import Counter, Histogram

# phase: "request" (AuthZReq) or "response" (AuthZRes)
# rule: DecisionRule value that produced the verdict
DECISIONS_TOTAL = Counter(
    "img_authz_decisions_total",
    "Authorization decisions by phase, verdict and rule",
    ["phase", "result", "rule"],
)

CLASSIFICATIONS_TOTAL = Counter(
    "img_authz_classifications_total",
    "Request classifications by outcome",
    ["outcome"],
)

DECISION_DURATION = Histogram(
    "img_authz_decision_duration_seconds",
    "Time taken to classify and decide a request",
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1],
)

ENVELOPE_ERRORS_TOTAL = Counter(
    "img_authz_envelope_errors_total",
    "Plugin requests rejected because the envelope could not be decoded",
    ["endpoint"],
)
