"""Driver adapters implementing the Handle protocols.

Adapters are thin: they translate a driver's API into Handle/RemoteElement
queries and leave session lifecycle to the caller. Import the submodule you
need (settle.drivers.selenium or settle.drivers.http) so that only that
driver's library is loaded.
"""
