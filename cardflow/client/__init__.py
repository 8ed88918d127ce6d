from cardflow.client.cache import OptimisticCardCache
from cardflow.client.api import BoardSession, CardflowAPIError, CardflowClient
