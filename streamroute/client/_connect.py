from typing import Union
from .transport import ITransport, HttpTransport, TcpTransport


def resolve_transport(transport_or_url: Union[str, ITransport]) -> ITransport:
    if not isinstance(transport_or_url, str):
        return transport_or_url
    if transport_or_url.startswith("http"):
        return HttpTransport(transport_or_url)
    host, port = transport_or_url.split(":")
    return TcpTransport(host, int(port))
