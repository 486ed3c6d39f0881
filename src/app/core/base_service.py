"""
서비스 기본 클래스
"""
import logging
from core.interfaces import IBillingStore

class BaseService:
    """모든 서비스의 기본 클래스"""

    def __init__(self, store: IBillingStore):
        self.store = store
        self.logger = logging.getLogger(self.__class__.__name__)
