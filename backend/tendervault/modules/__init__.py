"""
Domain managers, one bounded context per subpackage.

Routers and the upload-events worker call application services here rather
than invoking repositories or infrastructure adapters directly.
"""
