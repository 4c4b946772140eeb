"""
outputs_sync
------------

terraform outputs 를 .env 로 되돌려 반영한다.

- DB_HOST: service-db-address output 과 다르면 갱신 (처음 실행 시 항목이 없으면 항상 기록)
- gateway 모드: 로드밸런서마다 <PREFIX>_SERVICE_URL 을 기록
"""

from __future__ import annotations

from typing import Dict

from .aws_ecs import ClusterController
from .config import EnvFileStore
from .logging_utils import get_logger
from .terraform import ProvisioningOutputs


logger = get_logger(__name__)

DB_HOST_KEY = "DB_HOST"
DB_ADDRESS_OUTPUT = "service-db-address"


def sync_db_host(store: EnvFileStore, outputs: ProvisioningOutputs) -> bool:
    """
    .env 의 DB_HOST 를 terraform output 과 맞춘다. 실제로 파일을 고쳤으면 True.

    기존 DB_HOST 가 없으면 (None != 값) 이므로 첫 실행에는 무조건 한 번 기록한다.
    """
    address = outputs.optional_value(DB_ADDRESS_OUTPUT)
    if address is None:
        logger.debug("%s output 이 없어 DB_HOST 동기화를 건너뜁니다.", DB_ADDRESS_OUTPUT)
        return False

    logger.info("Checking for DB_HOST in .env file...")
    current = store.get(DB_HOST_KEY, None)
    if current == address:
        return False

    logger.info("Updating .env file with new DB_HOST...")
    store.set(DB_HOST_KEY, address)
    return True


def service_url_key(load_balancer_name: str) -> str:
    """`api-prod-alb` → `API_SERVICE_URL`"""
    return load_balancer_name.split("-")[0].upper() + "_SERVICE_URL"


def discover_service_urls(
    store: EnvFileStore, cluster: ClusterController, region: str
) -> Dict[str, str]:
    """로드밸런서 목록을 조회해 로드밸런서마다 서비스 URL 항목을 .env 에 기록한다."""
    logger.info("로드밸런서 목록 조회 중...")
    urls: Dict[str, str] = {}
    for lb in cluster.list_load_balancers(region):
        key = service_url_key(lb.name)
        url = f"http://{lb.dns_name}"
        logger.info("%s=%s", key, url)
        store.set(key, url)
        urls[key] = url
    return urls
