"""MuSAIB — mutual-benefit-society membership portal.

Administrators manage members, the benefit service catalog and incoming
requests; members manage their profile, their family dependents and submit
benefit requests.
"""

__version__ = "0.1.0"
