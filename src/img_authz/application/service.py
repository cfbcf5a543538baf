import logging
import time

from img_authz.domain.classifier import RequestClassifier
from img_authz.domain.models import (
    AuthZRequest,
    ClassifiedRequest,
    Decision,
    DecisionRule,
)
from img_authz.domain.policy import AuthorizationPolicy
from img_authz.metrics import CLASSIFICATIONS_TOTAL, DECISION_DURATION, DECISIONS_TOTAL

logger = logging.getLogger(__name__)

NO_REGISTRIES_MSG = "No authorized registries configured"
NO_IMAGES_MSG = "No authorized images configured"
UNAUTHORIZED_MSG = (
    "You can only use docker images from the following authorized registries: "
)


def decide(classified: ClassifiedRequest, policy: AuthorizationPolicy) -> Decision:
    """
    Pure authorization decision for a classified request.

    Rules are evaluated in order and the first match wins:
        1. Not a registry operation -> allow.
        2. No authorized registries -> deny.
        3. No authorized images -> deny.
        4. Registry AND image both whitelisted -> allow.
        5. Otherwise -> deny, listing the authorized registries.
    """
    if not classified.is_registry_operation:
        return Decision(allow=True, rule=DecisionRule.NOT_REGISTRY_OPERATION)

    if not policy.has_any_registries():
        return Decision(
            allow=False, message=NO_REGISTRIES_MSG, rule=DecisionRule.NO_REGISTRIES
        )

    if not policy.has_any_images():
        return Decision(allow=False, message=NO_IMAGES_MSG, rule=DecisionRule.NO_IMAGES)

    # Registry and image are checked against independent sets, not as pairs.
    if policy.is_registry_authorized(
        classified.registry
    ) and policy.is_image_authorized(classified.image):
        return Decision(allow=True, rule=DecisionRule.AUTHORIZED)

    return Decision(
        allow=False,
        message=UNAUTHORIZED_MSG + policy.registries_as_string(),
        rule=DecisionRule.UNAUTHORIZED,
    )


class AuthorizationService:
    """
    Application service behind the AuthZReq / AuthZRes plugin endpoints.
    Classifies each request, applies the policy and records the verdict.
    """

    def __init__(self, classifier: RequestClassifier, policy: AuthorizationPolicy):
        """
        Initializes the service.

        Args:
            classifier: Extracts registry and image from raw API requests.
            policy: Immutable whitelist shared by all requests.
        """
        self.classifier = classifier
        self.policy = policy

    def decide(self, classified: ClassifiedRequest) -> Decision:
        return decide(classified, self.policy)

    def authorize_request(self, req: AuthZRequest) -> Decision:
        """Request phase: gates registry operations against the whitelist."""
        start = time.monotonic()
        classified = self.classifier.classify(
            req.request_method, req.request_uri, req.request_body
        )
        decision = self.decide(classified)
        DECISION_DURATION.observe(time.monotonic() - start)

        CLASSIFICATIONS_TOTAL.labels(outcome=classified.outcome.value).inc()
        DECISIONS_TOTAL.labels(
            phase="request",
            result="allowed" if decision.allow else "denied",
            rule=decision.rule.value,
        ).inc()
        self._log_decision(req, classified, decision)
        return decision

    def authorize_response(self, req: AuthZRequest) -> Decision:
        """Response phase: responses from the daemon are never gated."""
        decision = Decision(allow=True, rule=DecisionRule.RESPONSE_PHASE)
        DECISIONS_TOTAL.labels(
            phase="response", result="allowed", rule=decision.rule.value
        ).inc()
        return decision

    def _log_decision(
        self, req: AuthZRequest, classified: ClassifiedRequest, decision: Decision
    ) -> None:
        method, url = req.request_method, classified.url
        rule = decision.rule

        if rule == DecisionRule.NOT_REGISTRY_OPERATION:
            logger.info(
                f"[ALLOWED] Not a registry command ({classified.outcome.value}): "
                f"{method} {url}"
            )
        elif rule == DecisionRule.NO_REGISTRIES:
            logger.info(f"[DENIED] No authorized registries {method} {url}")
        elif rule == DecisionRule.NO_IMAGES:
            logger.info(f"[DENIED] No authorized images {method} {url}")
        elif rule == DecisionRule.AUTHORIZED:
            logger.info(
                f"[ALLOWED] Registry: {classified.registry}, "
                f"Image: {classified.image} {method} {url}"
            )
        else:
            logger.info(
                f"[DENIED] Registry: {classified.registry}, "
                f"Image: {classified.image} {method} {url}"
            )
