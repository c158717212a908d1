"""Cache policy: which traffic a client reads from and writes to its cache."""

from .types import CacheMode, Request


class CachePolicy:
    """Per-request cache decisions derived from a :class:`CacheMode`.

    ==========  =============  ==============  ===========  ============
    mode        GET read       GET write       token read   token write
    ==========  =============  ==============  ===========  ============
    NONE        no             no              no           no
    GET         yes            yes             no           no
    TOKEN       no             no              yes          yes
    ALL         yes            yes             yes          yes
    REFRESH     no             yes             no           yes
    ==========  =============  ==============  ===========  ============

    Only GET requests are ever cached as responses.
    """

    def __init__(self, mode: CacheMode):
        self.mode = mode

    def should_read_response(self, request: Request) -> bool:
        return request.method == "GET" and self.mode.has(CacheMode.GET)

    def should_write_response(self, request: Request) -> bool:
        return request.method == "GET" and (
            self.mode is CacheMode.REFRESH or self.mode.has(CacheMode.GET)
        )

    def should_read_token(self) -> bool:
        return self.mode.has(CacheMode.TOKEN)

    def should_write_token(self) -> bool:
        return self.mode is CacheMode.REFRESH or self.mode.has(CacheMode.TOKEN)
