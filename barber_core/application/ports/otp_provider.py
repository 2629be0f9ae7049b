from typing import Protocol


class OTPProvider(Protocol):
    def send(self, phone: str) -> str:
        """Start a verification for ``phone`` and return the provider status.

        Raises OTPProviderError when the provider cannot be reached.
        """
        ...

    def verify(self, phone: str, code: str) -> bool:
        """Return True when ``code`` is the pending code for ``phone``.

        Raises OTPProviderError when the provider cannot be reached.
        """
        ...
