from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from db.session import get_db
from models.quiz import Quiz
from models.answer import UserAnswer
from models.result import UserResult
from services.quiz_service import QuizService
from services.question_service import QuestionService
from services.answer_service import AnswerService, answer_to_dict
from services.result_service import ResultService
from core.config import settings
from core.exceptions import QuizError, ValidationError, NotFoundError, ConflictError, StoreFault
from core.logger import logger

# API Documentation
API_DESCRIPTION = """
## Quiz Engine API

Quiz authoring, answer submission and scoring.

Authentication is handled in front of this service; every request is assumed
to come from an already verified caller.
"""

TAGS_METADATA = [
    {"name": "quizzes", "description": "Quiz CRUD and token lookup."},
    {"name": "questions", "description": "Questions with their options, created and replaced as one unit."},
    {"name": "answers", "description": "Participant answers, one per question per attempt."},
    {"name": "results", "description": "Scoring and leaderboards."},
]

app = FastAPI(
    title="Quiz Engine API",
    description=API_DESCRIPTION,
    version="1.0.0",
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    StoreFault: 500,
}


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    status_code = ERROR_STATUS.get(type(exc), 500)
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=status_code, content={"success": False, "message": exc.message})


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    # Reads run outside transaction(), so their database errors arrive here unmapped
    logger.error("Request failed on store fault", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"success": False, "message": "Database error"})


def ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = jsonable_encoder(data)
    return body


def quiz_to_dict(quiz: Quiz) -> Dict[str, Any]:
    return {
        "quiz_id": quiz.quiz_id,
        "admin_id": quiz.admin_id,
        "quiz_name": quiz.quiz_name,
        "description": quiz.description,
        "total_mark": quiz.total_mark,
        "quiz_token": quiz.quiz_token,
        "is_active": quiz.is_active,
        "created_at": quiz.created_at,
    }


def result_to_dict(result: UserResult) -> Dict[str, Any]:
    return {
        "result_id": result.result_id,
        "user_id": result.user_id,
        "quiz_id": result.quiz_id,
        "score": result.score,
        "completed_at": result.completed_at,
    }

# === Pydantic Models ===
# Required fields stay Optional here: presence is checked by the services so
# a missing field is reported as a 400 with the service's message.

class QuizCreate(BaseModel):
    admin_id: Optional[int] = Field(None, description="Owning admin")
    quiz_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    total_mark: Optional[int] = Field(None, description="Total possible mark")
    is_active: bool = True


class QuizUpdate(BaseModel):
    quiz_name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    total_mark: Optional[int] = None
    is_active: Optional[bool] = None


class OptionIn(BaseModel):
    option_text: Optional[str] = None
    is_correct: bool = False


class QuestionIn(BaseModel):
    question_text: Optional[str] = None
    points: Optional[int] = Field(None, description="Point value, defaults to 1")
    options: Optional[List[OptionIn]] = None


class QuestionsCreate(BaseModel):
    quiz_id: Optional[int] = None
    questions: Optional[List[QuestionIn]] = None


class QuestionUpdate(BaseModel):
    question_text: Optional[str] = None
    points: Optional[int] = None
    options: Optional[List[OptionIn]] = None


class AnswerIn(BaseModel):
    question_id: Optional[int] = None
    option_id: Optional[int] = None


class AnswersSubmit(BaseModel):
    user_id: Optional[int] = None
    quiz_id: Optional[int] = None
    answers: Optional[List[AnswerIn]] = None


class AnswerUpdate(BaseModel):
    option_id: Optional[int] = None


class ResultCalculate(BaseModel):
    user_id: Optional[int] = None
    quiz_id: Optional[int] = None


class ResultCreate(BaseModel):
    user_id: Optional[int] = None
    quiz_id: Optional[int] = None
    score: Optional[int] = None


class ResultUpdate(BaseModel):
    score: Optional[int] = None


def _dump_list(items: Optional[List[BaseModel]]) -> Optional[List[Dict[str, Any]]]:
    if items is None:
        return None
    return [item.model_dump() for item in items]

# === Quizzes ===

@app.post("/api/quizzes", status_code=201, tags=["quizzes"], summary="Create quiz")
async def create_quiz(body: QuizCreate, db: AsyncSession = Depends(get_db)):
    quiz = await QuizService(db).create_quiz(
        admin_id=body.admin_id,
        quiz_name=body.quiz_name,
        total_mark=body.total_mark,
        description=body.description,
        is_active=body.is_active,
    )
    return ok(quiz_to_dict(quiz))


@app.get("/api/quizzes", tags=["quizzes"], summary="List quizzes")
async def list_quizzes(db: AsyncSession = Depends(get_db)):
    quizzes = await QuizService(db).get_quizzes()
    return ok([quiz_to_dict(q) for q in quizzes])


@app.get("/api/quizzes/token/{token}", tags=["quizzes"], summary="Find an active quiz by access token")
async def get_quiz_by_token(token: str, db: AsyncSession = Depends(get_db)):
    quiz = await QuizService(db).get_quiz_by_token(token)
    return ok(quiz_to_dict(quiz))


@app.get("/api/quizzes/{quiz_id}", tags=["quizzes"], summary="Get quiz")
async def get_quiz(quiz_id: int, db: AsyncSession = Depends(get_db)):
    quiz = await QuizService(db).get_quiz(quiz_id)
    return ok(quiz_to_dict(quiz))


@app.put("/api/quizzes/{quiz_id}", tags=["quizzes"], summary="Update quiz")
async def update_quiz(quiz_id: int, body: QuizUpdate, db: AsyncSession = Depends(get_db)):
    quiz = await QuizService(db).update_quiz(quiz_id, **body.model_dump())
    return ok(quiz_to_dict(quiz))


@app.delete("/api/quizzes/{quiz_id}", tags=["quizzes"], summary="Delete quiz with its questions")
async def delete_quiz(quiz_id: int, db: AsyncSession = Depends(get_db)):
    await QuizService(db).delete_quiz(quiz_id)
    return ok(message="Quiz deleted successfully")

# === Questions ===

@app.post("/api/questions", status_code=201, tags=["questions"], summary="Create questions with options")
async def create_questions(body: QuestionsCreate, db: AsyncSession = Depends(get_db)):
    created = await QuestionService(db).create_questions_with_options(body.quiz_id, _dump_list(body.questions))
    return ok(created, message=f"{len(created)} questions created successfully")


@app.get("/api/questions", tags=["questions"], summary="List questions with options")
async def list_questions(quiz_id: Optional[int] = None, db: AsyncSession = Depends(get_db)):
    return ok(await QuestionService(db).get_questions_with_options(quiz_id=quiz_id))


@app.get("/api/questions/{question_id}", tags=["questions"], summary="Get question with options")
async def get_question(question_id: int, db: AsyncSession = Depends(get_db)):
    return ok(await QuestionService(db).get_questions_with_options(question_id=question_id))


@app.put("/api/questions/{question_id}", tags=["questions"], summary="Update question and replace its options")
async def update_question(question_id: int, body: QuestionUpdate, db: AsyncSession = Depends(get_db)):
    updated = await QuestionService(db).update_question_with_options(
        question_id, body.question_text, body.points, _dump_list(body.options)
    )
    return ok(updated)


@app.delete("/api/questions/{question_id}", tags=["questions"], summary="Delete question and its options")
async def delete_question(question_id: int, db: AsyncSession = Depends(get_db)):
    await QuestionService(db).delete_question(question_id)
    return ok(message="Question and its options deleted successfully")

# === User answers ===

@app.post("/api/user-answers", status_code=201, tags=["answers"], summary="Submit answers")
async def submit_answers(body: AnswersSubmit, db: AsyncSession = Depends(get_db)):
    stored = await AnswerService(db).submit_answers(body.user_id, body.quiz_id, _dump_list(body.answers))
    return ok(stored, message=f"{len(stored)} answers submitted successfully")


@app.get("/api/user-answers", tags=["answers"], summary="List all answers")
async def list_answers(db: AsyncSession = Depends(get_db)):
    answers = await AnswerService(db).get_answers()
    return ok([answer_to_dict(a) for a in answers])


@app.get("/api/user-answers/{user_id}/{quiz_id}", tags=["answers"], summary="Answers of one attempt")
async def get_answers_by_quiz(user_id: int, quiz_id: int, db: AsyncSession = Depends(get_db)):
    answers = await AnswerService(db).get_answers_by_quiz(user_id, quiz_id)
    return ok([answer_to_dict(a) for a in answers])


@app.get("/api/user-answers/{user_id}/{quiz_id}/{question_id}", tags=["answers"], summary="Get one answer")
async def get_answer(user_id: int, quiz_id: int, question_id: int, db: AsyncSession = Depends(get_db)):
    answer: UserAnswer = await AnswerService(db).get_answer(user_id, quiz_id, question_id)
    return ok(answer_to_dict(answer))


@app.put("/api/user-answers/{user_id}/{quiz_id}/{question_id}", tags=["answers"], summary="Change one answer")
async def update_answer(
    user_id: int, quiz_id: int, question_id: int, body: AnswerUpdate, db: AsyncSession = Depends(get_db)
):
    answer = await AnswerService(db).update_answer(user_id, quiz_id, question_id, body.option_id)
    return ok(answer_to_dict(answer))


@app.delete("/api/user-answers/{user_id}/{quiz_id}", tags=["answers"], summary="Restart an attempt")
async def delete_answers(user_id: int, quiz_id: int, db: AsyncSession = Depends(get_db)):
    await AnswerService(db).delete_answers_for_quiz(user_id, quiz_id)
    return ok(message="User answers deleted successfully")

# === Results ===

@app.post("/api/results/calculate", status_code=201, tags=["results"], summary="Score an attempt and store it")
async def calculate_result(body: ResultCalculate, db: AsyncSession = Depends(get_db)):
    result = await ResultService(db).compute_and_store_result(body.user_id, body.quiz_id)
    return ok(result_to_dict(result), message="Quiz result calculated and saved successfully")


@app.post("/api/results", status_code=201, tags=["results"], summary="Create result manually")
async def create_result(body: ResultCreate, db: AsyncSession = Depends(get_db)):
    result = await ResultService(db).create_result_manually(body.user_id, body.quiz_id, body.score)
    return ok(result_to_dict(result))


@app.get("/api/results", tags=["results"], summary="List results")
async def list_results(db: AsyncSession = Depends(get_db)):
    results = await ResultService(db).get_results()
    return ok([result_to_dict(r) for r in results])


@app.get("/api/results/user/{user_id}", tags=["results"], summary="Results of a participant")
async def get_results_by_user(user_id: int, db: AsyncSession = Depends(get_db)):
    results = await ResultService(db).get_results_by_user(user_id)
    return ok([result_to_dict(r) for r in results])


@app.get("/api/results/quiz/{quiz_id}", tags=["results"], summary="Quiz leaderboard")
async def get_results_by_quiz(quiz_id: int, db: AsyncSession = Depends(get_db)):
    results = await ResultService(db).get_results_by_quiz(quiz_id)
    return ok([result_to_dict(r) for r in results])


@app.get("/api/results/user/{user_id}/quiz/{quiz_id}", tags=["results"], summary="Result of one attempt")
async def get_user_quiz_result(user_id: int, quiz_id: int, db: AsyncSession = Depends(get_db)):
    result = await ResultService(db).get_user_quiz_result(user_id, quiz_id)
    return ok(result_to_dict(result))


@app.get("/api/results/{result_id}", tags=["results"], summary="Get result")
async def get_result(result_id: int, db: AsyncSession = Depends(get_db)):
    result = await ResultService(db).get_result(result_id)
    return ok(result_to_dict(result))


@app.put("/api/results/{result_id}", tags=["results"], summary="Override a score")
async def update_result(result_id: int, body: ResultUpdate, db: AsyncSession = Depends(get_db)):
    result = await ResultService(db).update_result(result_id, body.score)
    return ok(result_to_dict(result))


@app.delete("/api/results/{result_id}", tags=["results"], summary="Delete result")
async def delete_result(result_id: int, db: AsyncSession = Depends(get_db)):
    await ResultService(db).delete_result(result_id)
    return ok(message="Result deleted successfully")
