"""Station Manager — transit station API with stateless bearer-token auth.

Users register and log in with a password, receive a signed access/refresh
token pair, and present the access token on every other request. Stations
are pulled from an external transit feed into a local collection.
"""

__version__ = "0.1.0"
