"""
Resolution of resource references (template_url, style_urls, @import).
"""
import os
from urllib.parse import urljoin, urlparse


def has_scheme(url):
    # single letter schemes are drive letters
    return len(urlparse(url).scheme) > 1


class UrlResolver:
    """Resolves a relative resource url against the file or url that references it.

    Urls with a scheme are resolved the way a browser would. Everything else
    is a file path, resolved against the directory of the referencing file.
    """

    def resolve(self, base_url, url):
        if has_scheme(url):
            return url
        if base_url and has_scheme(base_url):
            return urljoin(base_url, url)
        if os.path.isabs(url) or not base_url:
            return os.path.normpath(url)
        return os.path.normpath(os.path.join(os.path.dirname(base_url), url))
