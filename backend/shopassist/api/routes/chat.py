import logging
import time

from fastapi import APIRouter, HTTPException

from shopassist.api.schemas import ActionRequest, ActionResponse, ChatRequest, ChatResponse
from shopassist.core.config import settings
from shopassist.core.logging import SessionLogger
from shopassist.core.services import orchestrator
from shopassist.errors import (
    ActionDisabledError,
    ActionNotFoundError,
    AdapterNotFoundError,
    ConfigurationError,
    FunctionNotFoundError,
    HandlerExecutionError,
    InvalidHandlerError,
    InvalidTenantConfigError,
    TenantNotFoundError,
)
from shopassist.pipeline.orchestrator import ChatTurn

logger = logging.getLogger("shop.api")
router = APIRouter()


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True, response_model_by_alias=True)
async def chat(req: ChatRequest):
    """
    Orchestrated chat turn. Always answers with a message or a grounded
    tool result unless the tenant itself cannot be loaded.
    """
    start = time.time()
    session_logger = SessionLogger(settings.log_dir, req.tenant_id, req.session_id)
    turn = ChatTurn(
        tenant_id=req.tenant_id,
        session_id=req.session_id,
        message=req.message,
        history=[m.model_dump() for m in req.conversation_history],
    )
    try:
        result = await orchestrator.handle(turn, session_logger=session_logger)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidTenantConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigurationError as e:
        logger.error(f"CHAT CONFIG ERROR | {e}")
        raise HTTPException(status_code=500, detail="Service misconfigured")
    finally:
        session_logger.close()

    logger.info(f"CHAT DONE | type={result['type']} provider={result['provider']} in {time.time() - start:.2f}s")
    return ChatResponse.model_validate(result)


@router.post("/actions", response_model=ActionResponse)
async def direct_action(req: ActionRequest):
    """
    Run one registry action directly, bypassing the model.
    """
    try:
        result = await orchestrator.run_direct_action(req.tenant_id, req.session_id, req.action, req.params)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ActionNotFoundError, ActionDisabledError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except HandlerExecutionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidTenantConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (ConfigurationError, InvalidHandlerError, AdapterNotFoundError, FunctionNotFoundError) as e:
        logger.error(f"ACTION CONFIG ERROR | {e}")
        raise HTTPException(status_code=500, detail="Action is misconfigured")
    return ActionResponse(action=req.action, result=result.to_dict())
