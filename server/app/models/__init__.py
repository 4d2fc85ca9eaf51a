from .sponsorship import SponsorshipGrant, SponsorshipRequest  # noqa: F401
