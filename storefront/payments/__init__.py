from .checkout import CheckoutAttempt, CheckoutFlow, CheckoutForm, CheckoutPhase, generate_reference
from .confirmation import ConfirmationResult, ConfirmationStatus, apply_gateway_notification, confirm_payment
