"""
Wire transports used by vendor adapters
"""

from .rest import RESTClient
from .graphql import GraphQLClient
from .soap import SOAPClient, as_list, element_to_value

__all__ = ["RESTClient", "GraphQLClient", "SOAPClient", "as_list", "element_to_value"]
