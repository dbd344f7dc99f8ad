from __future__ import annotations

from dataclasses import dataclass, replace
from fnmatch import fnmatch
from typing import Dict, Optional, Tuple
from urllib.parse import urlparse


@dataclass(frozen=True)
class ProxySettings:
    host: Optional[str] = None
    port: Optional[int] = None
    bypass: Tuple[str, ...] = ()

    def with_proxy(self, host: str, port: int) -> "ProxySettings":
        return replace(self, host=host, port=int(port))

    def with_bypass(self, host: str) -> "ProxySettings":
        if host in self.bypass:
            return self
        return replace(self, bypass=self.bypass + (host,))

    def is_bypassed(self, hostname: str) -> bool:
        return any(hostname == pattern or fnmatch(hostname, pattern) for pattern in self.bypass)

    def proxies_for(self, url: str) -> Dict[str, str]:
        """``proxies`` argument for a requests call to url"""
        if not self.host:
            return {}
        hostname = urlparse(url).hostname or ""
        if self.is_bypassed(hostname):
            return {}
        proxy_url = f"http://{self.host}:{self.port}"
        return {"http": proxy_url, "https": proxy_url}
