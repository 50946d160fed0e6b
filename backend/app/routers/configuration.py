"""
系统配置路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.errors import to_http_exception
from app.models.orm import User
from app.models.schemas import ConfigurationResponse, ConfigurationUpdate
from app.services.configuration_service import ConfigurationService
from app.security.auth import get_current_user, require_super_admin
from core.domain.errors import DomainError

router = APIRouter(prefix="/configurations", tags=["系统配置"])


@router.get("/", response_model=List[ConfigurationResponse])
def list_configurations(
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取配置列表"""
    return ConfigurationService(db).get_all(category)


@router.get("/{key}", response_model=ConfigurationResponse)
def get_configuration(
    key: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """获取单个配置"""
    config = ConfigurationService(db).get(key)
    if not config:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="配置不存在")
    return config


@router.put("/{key}", response_model=ConfigurationResponse)
def update_configuration(
    key: str,
    data: ConfigurationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_super_admin)
):
    """新增或更新配置（退款档位表写入前校验）"""
    service = ConfigurationService(db)
    try:
        return service.set(key, data.value, data.type, data.description, data.category)
    except DomainError as e:
        raise to_http_exception(e)
