"""
Live Student Session WebSocket
Pushes the student's session state and accepts workflow actions.

Client messages (JSON):
    {"action": "join", "studentId": "...", "name": "..."}
    {"action": "submit", "answers": {"<questionId>": "<answer>"}}
    {"action": "continue"}
    {"action": "navigate", "index": 2}
    {"action": "dismiss"}
    {"action": "accept"}
    {"action": "finish"}

Server messages: {"type": "snapshot", "data": {...}} or
{"type": "error", "detail": "..."}.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Tuple
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from motor.motor_asyncio import AsyncIOMotorDatabase

from casestudy.api.dependencies import get_db, get_live_channel
from casestudy.models.progress import StudentSessionSnapshot
from casestudy.services.case_study_service import CaseStudyNotFoundError
from casestudy.services.live_status import LiveStatusChannel
from casestudy.services.response_service import SubmissionValidationError
from casestudy.services.session_service import SessionInactiveError, SessionNotFoundError
from casestudy.services.student_session import StudentSessionController, StudentSessionError

logger = logging.getLogger(__name__)

router = APIRouter()

# Application close codes
CLOSE_NOT_FOUND = 4404
CLOSE_INACTIVE = 4410


def _snapshot_message(snapshot: StudentSessionSnapshot) -> Dict[str, Any]:
    return {"type": "snapshot", "data": snapshot.model_dump(mode="json")}


def _error_message(error: Exception) -> Dict[str, Any]:
    return {"type": "error", "detail": str(error)}


async def _handle_action(controller: StudentSessionController, message: Dict[str, Any]) -> None:
    action = message.get("action")
    
    if action == "join":
        await controller.join(str(message.get("studentId", "")), str(message.get("name", "")))
    elif action == "submit":
        answers = message.get("answers") or {}
        if not isinstance(answers, dict):
            raise StudentSessionError("answers must map question ids to answers")
        await controller.submit({key: str(value) for key, value in answers.items()})
    elif action == "continue":
        controller.continue_after_review()
    elif action == "navigate":
        index = message.get("index")
        if not isinstance(index, int) or not controller.navigate_to(index):
            raise StudentSessionError(f"Section {index} is not available")
    elif action == "dismiss":
        controller.dismiss_notification()
    elif action == "accept":
        controller.accept_notification()
    elif action == "finish":
        controller.finish()
    else:
        raise StudentSessionError(f"Unknown action: {action}")


@router.websocket("/ws/sessions/{code}")
async def student_session_socket(
    websocket: WebSocket,
    code: str,
    student_id: Optional[str] = Query(default=None, alias="studentId"),
    db: AsyncIOMotorDatabase = Depends(get_db),
    live_channel: LiveStatusChannel = Depends(get_live_channel)
):
    await websocket.accept()
    controller = StudentSessionController.from_db(db, live_channel)
    
    try:
        snapshot = await controller.load(code, student_id)
    except (SessionNotFoundError, CaseStudyNotFoundError) as e:
        await websocket.send_json(_error_message(e))
        await websocket.close(code=CLOSE_NOT_FOUND)
        return
    except SessionInactiveError as e:
        await websocket.send_json(_error_message(e))
        await websocket.close(code=CLOSE_INACTIVE)
        return
    
    # Only the writer task sends; items are (message, close_code)
    outgoing: "asyncio.Queue[Tuple[Optional[Dict[str, Any]], Optional[int]]]" = asyncio.Queue()
    
    def send(message: Optional[Dict[str, Any]], close_code: Optional[int] = None) -> None:
        outgoing.put_nowait((message, close_code))
    
    async def writer() -> None:
        while True:
            message, close_code = await outgoing.get()
            if message is not None:
                await websocket.send_json(message)
            if close_code is not None:
                await websocket.close(code=close_code)
                return
    
    send(_snapshot_message(snapshot))
    writer_task = asyncio.create_task(writer())
    controller.attach(lambda pushed: send(_snapshot_message(pushed)))
    closing = False
    
    try:
        await controller.set_presence(True)
        while True:
            try:
                message = await websocket.receive_json()
            except (ValueError, KeyError):
                send({"type": "error", "detail": "Messages must be JSON objects"})
                continue
            if not isinstance(message, dict):
                send({"type": "error", "detail": "Messages must be JSON objects"})
                continue
            
            try:
                was_joined = controller.student is not None
                await _handle_action(controller, message)
                if not was_joined and controller.student is not None:
                    await controller.set_presence(True)
            except SessionInactiveError as e:
                send(_error_message(e), CLOSE_INACTIVE)
                closing = True
                break
            except (StudentSessionError, SubmissionValidationError, ValueError) as e:
                send(_error_message(e))
                continue
            send(_snapshot_message(controller.snapshot()))
    
    except WebSocketDisconnect:
        logger.info(f"Student socket for session {code} disconnected")
    
    finally:
        controller.detach()
        if not closing and not writer_task.done():
            writer_task.cancel()
        try:
            await writer_task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"⚠️ Socket writer for session {code} stopped: {e}")
        await controller.set_presence(False)
