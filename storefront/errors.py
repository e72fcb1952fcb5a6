"""
Taxonomie des erreurs de la boutique.
- RepositoryError: I/O vers le stockage distant (Supabase)
- PaymentError: requête/réponse passerelle (y compris URL de paiement absente)
- VerificationError: échec de l'appel de vérification (distinct d'un paiement non complété)
- ConfigurationError: identifiants passerelle manquants
"""


class StorefrontError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class RepositoryError(StorefrontError):
    status_code = 502


class PaymentError(StorefrontError):
    status_code = 502


class VerificationError(PaymentError):
    pass


class ConfigurationError(StorefrontError):
    status_code = 500


class CheckoutError(StorefrontError):
    status_code = 400


class EmptyCartError(CheckoutError):
    def __init__(self, message: str = "Panier vide"):
        super().__init__(message)


class CheckoutInProgressError(CheckoutError):
    status_code = 409

    def __init__(self, message: str = "Un paiement est déjà en cours pour ce panier"):
        super().__init__(message)


class OrderTransitionError(StorefrontError):
    status_code = 409
