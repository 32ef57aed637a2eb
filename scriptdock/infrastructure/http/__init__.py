"""
网络基础设施模块

提供远程脚本下载。
"""
from .remote_fetcher import RemoteFetcher, FetchedScript, derive_name

__all__ = ['RemoteFetcher', 'FetchedScript', 'derive_name']
