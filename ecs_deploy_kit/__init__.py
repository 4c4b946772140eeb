"""
ecs_deploy_kit
--------------

terraform 으로 AWS 인프라를 준비하고, 도커 이미지를 ECR 에 올린 뒤
ECS 서비스를 강제 재배포하는 배포 CLI 패키지.
배포 디렉토리의 .env 하나로 설정하고 한 번에 배포하는 것을 목표로 한다.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "orchestrator",
]
