"""Authentication and authorization.

Learn: three layers, leaves first:
1. ProfileLoader → turns an authenticated session into a CurrentUser
2. AuthContext → one per application instance; current user + loading
   flag, kept in sync with the SessionStore's events
3. RouteGuard → decides wait / redirect / allow for a page, given the
   AuthContext and the page's required role
"""
