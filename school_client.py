"""
校宝（schoolis）学生端 API 客户端
"""

import base64
import hashlib
import os
import tempfile
import time
from typing import Callable, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from models import (
    EvaluationProject,
    Semester,
    SubjectDetail,
    SubjectDynamicScore,
    SubjectSimple,
)


BASE_URL = "https://tsinglanstudent.schoolis.cn"

# 登录接口返回的错误码
ERR_CODE_INVALID_CAPTCHA = 1180038
ERR_CODE_INVALID_CREDENTIALS = 13
ERR_CODE_AUTH_FAILED = 1010076

CAPTCHA_FILE_NAME = "myxb_captcha.png"


class ApiError(ValueError):
    """接口返回 state != 0"""

    def __init__(self, message: str, state: Optional[int] = None):
        super().__init__(message)
        self.state = state


class CaptchaRequiredError(ApiError):
    """自动登录时遇到验证码，无法交互处理"""


def first_hash(password: str) -> str:
    """第一次 MD5（大写十六进制），本地只保存这一层"""
    return hashlib.md5(password.encode("utf-8")).hexdigest().upper()


def second_hash(password_hash: str, timestamp: int) -> str:
    """第二次 MD5：第一次的结果拼接时间戳"""
    combined = f"{password_hash}{timestamp}"
    return hashlib.md5(combined.encode("utf-8")).hexdigest().upper()


def hash_password(password: str, timestamp: int) -> str:
    return second_hash(first_hash(password), timestamp)


def check_api_response(payload: dict) -> None:
    """通用响应检查"""
    state = payload.get("state")
    if state != 0:
        raise ApiError(f"API error: {payload.get('msg')}", state)


def check_login_response(payload: dict) -> None:
    """登录响应检查，常见错误码给出明确提示"""
    state = payload.get("state")
    if state == 0:
        return
    if state == ERR_CODE_INVALID_CAPTCHA:
        raise ApiError("incorrect captcha", state)
    if state in (ERR_CODE_INVALID_CREDENTIALS, ERR_CODE_AUTH_FAILED):
        raise ApiError("incorrect username or password", state)
    raise ApiError(f"login failed: {payload.get('msg')}", state)


def save_captcha(data: str, directory: Optional[str] = None) -> str:
    """把 base64 验证码图片保存到临时目录，返回文件路径"""
    if data.startswith("data:image/png;base64,"):
        data = data[len("data:image/png;base64,"):]
    image = base64.b64decode(data)
    path = os.path.join(directory or tempfile.gettempdir(), CAPTCHA_FILE_NAME)
    with open(path, "wb") as f:
        f.write(image)
    return path


class SchoolClient(requests.Session):
    """API 客户端 - 负责登录与数据获取，会话 cookie 由 Session 管理"""

    def __init__(self, base_url: str = BASE_URL,
                 request_timeout: Tuple[float, float] = (5.0, 20.0),
                 debug_http: bool = False,
                 max_retries: int = 3,
                 backoff_factor: float = 0.6):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.debug_http = debug_http
        self.max_retries = int(max_retries)
        self.backoff_factor = float(backoff_factor)

        # 连接池级别的重试：502/503/504 等短暂服务异常与 connect/read 抖动
        retry = Retry(
            total=self.max_retries,
            connect=self.max_retries,
            read=self.max_retries,
            status=self.max_retries,
            status_forcelist=(429, 502, 503, 504),
            allowed_methods=("HEAD", "GET", "POST", "PUT", "DELETE", "OPTIONS"),
            backoff_factor=self.backoff_factor,
            respect_retry_after_header=True,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
        self.mount("https://", adapter)
        self.mount("http://", adapter)

        self.headers.update({
            "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/80.0.3987.149 Safari/537.36",
            "Accept": "application/json, text/plain, */*",
            "Accept-Language": "en-US,en;q=0.9",
            "Connection": "keep-alive",
            "Referer": f"{self.base_url}/",
        })

    def _request_with_default_timeout(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """统一加默认 timeout，debug 模式下打印请求耗时

        不传 timeout 时 requests 可能无限等待。
        """
        url = self.base_url + endpoint
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.request_timeout

        start = time.monotonic()
        try:
            res = self.request(method, url, **kwargs)
            res.raise_for_status()
            if self.debug_http:
                cost_ms = int((time.monotonic() - start) * 1000)
                print(f"{'[HTTP]':<15}: {method} {endpoint} -> {res.status_code} ({cost_ms}ms)")
            return res
        except requests.exceptions.Timeout:
            cost_ms = int((time.monotonic() - start) * 1000)
            print(f"{'[HTTP]':<15}: {method} {endpoint} timed out ({cost_ms}ms), timeout={kwargs.get('timeout')}")
            raise
        except requests.exceptions.RequestException as e:
            # 不开 debug_http 也输出失败原因
            cost_ms = int((time.monotonic() - start) * 1000)
            print(f"{'[HTTP]':<15}: {method} {endpoint} failed ({cost_ms}ms): {e}")
            raise

    def get_json(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """GET 并检查 state，返回完整响应体"""
        payload = self._request_with_default_timeout("GET", endpoint, params=params).json()
        check_api_response(payload)
        return payload

    def post_json(self, endpoint: str, params: Optional[dict] = None, body: Optional[dict] = None) -> dict:
        """POST JSON，返回完整响应体（不检查 state，由调用方决定）"""
        return self._request_with_default_timeout("POST", endpoint, params=params, json=body).json()

    # ------------------------------------------------------------------
    # 登录
    # ------------------------------------------------------------------

    def get_captcha(self) -> str:
        """获取登录验证码，返回 base64 图片，无需验证码时为空串"""
        payload = self.get_json("/api/MemberShip/GetStudentCaptchaForLogin")
        return payload.get("data") or ""

    def login_with_hash(self, username: str, password_hash: str, captcha: str = "",
                        timestamp: Optional[int] = None) -> None:
        """用第一次 MD5 后的密码登录"""
        if timestamp is None:
            timestamp = int(time.time())
        payload = self.post_json(
            "/api/MemberShip/Login",
            params={"captcha": captcha},
            body={
                "name": username,
                "password": second_hash(password_hash, timestamp),
                "timestamp": timestamp,
            },
        )
        check_login_response(payload)

    def login(self, username: str, password: str, captcha: str = "",
              timestamp: Optional[int] = None) -> None:
        """用明文密码登录"""
        self.login_with_hash(username, first_hash(password), captcha, timestamp)

    def login_with_captcha(self, username: str, password_hash: str,
                           prompt_captcha: Optional[Callable[[str], str]] = None) -> None:
        """完整登录流程：先取验证码，需要时交给 prompt_captcha 处理

        Args:
            prompt_captcha: 参数为验证码图片路径，返回用户输入；为 None 时表示
                不能交互，遇到验证码直接抛 CaptchaRequiredError
        """
        captcha_data = self.get_captcha()
        captcha = ""
        if captcha_data:
            if prompt_captcha is None:
                raise CaptchaRequiredError("captcha required, please run 'myxb login' again")
            try:
                captcha_path = save_captcha(captcha_data)
                print(f"{'[Login]':<15}: Captcha saved to: {captcha_path}")
            except (OSError, ValueError) as e:
                captcha_path = ""
                print(f"{'[Login]':<15}: Failed to save captcha image - {e}")
            captcha = prompt_captcha(captcha_path).strip()

        print(f"{'[Login]':<15}: Logging in as {username}...")
        self.login_with_hash(username, password_hash, captcha)

    # ------------------------------------------------------------------
    # 数据获取
    # ------------------------------------------------------------------

    def get_semesters(self) -> List[Semester]:
        payload = self.get_json("/api/School/GetSchoolSemesters")
        return [Semester.from_raw_data(s) for s in payload.get("data") or []]

    def get_subject_list(self, semester_id: int) -> List[SubjectSimple]:
        """获取学期科目列表，按 ID 去重（保留首次出现）"""
        payload = self.get_json(
            "/api/LearningTask/GetStuSubjectListForSelect",
            params={"semesterId": semester_id},
        )
        seen = set()
        subjects = []
        for raw in payload.get("data") or []:
            subject = SubjectSimple.from_raw_data(raw)
            if subject.id in seen:
                continue
            seen.add(subject.id)
            subjects.append(subject)
        return subjects

    def get_task_ids(self, semester_id: int, subject_id: int) -> List[int]:
        """获取科目学习任务 ID（只取第一页第一条）"""
        payload = self.get_json(
            "/api/LearningTask/GetList",
            params={
                "semesterId": semester_id,
                "subjectId": subject_id,
                "pageIndex": 1,
                "pageSize": 1,
            },
        )
        data = payload.get("data") or {}
        return [int(item["id"]) for item in data.get("list") or [] if item.get("id") is not None]

    def get_task_detail(self, task_id: int) -> SubjectDetail:
        payload = self.get_json("/api/LearningTask/GetDetail", params={"learningTaskId": task_id})
        return SubjectDetail.from_raw_data(payload.get("data") or {})

    def get_dynamic_score_detail(self, class_id: int, subject_id: int, semester_id: int) -> List[EvaluationProject]:
        """获取科目的评价项目树"""
        payload = self.get_json(
            "/api/DynamicScore/GetDynamicScoreDetail",
            params={"classId": class_id, "subjectId": subject_id, "semesterId": semester_id},
        )
        data = payload.get("data") or {}
        return EvaluationProject.list_from_raw_data(data.get("evaluationProjectList"))

    def get_semester_dynamic_score(self, semester_id: int) -> List[SubjectDynamicScore]:
        """获取学期内各科官方分数以及是否计入 GPA"""
        payload = self.get_json(
            "/api/DynamicScore/GetStuSemesterDynamicScore",
            params={"semesterId": semester_id},
        )
        data = payload.get("data") or {}
        return [
            SubjectDynamicScore.from_raw_data(raw)
            for raw in data.get("studentSemesterDynamicScoreBasicDtos") or []
        ]

    def get_gpa(self, semester_id: int) -> Optional[float]:
        """获取官方学期 GPA，未发布（null 或 0）时返回 None"""
        payload = self.get_json("/api/DynamicScore/GetGpa", params={"semesterId": semester_id})
        value = payload.get("data")
        if value is None:
            return None
        try:
            gpa = float(value)
        except (TypeError, ValueError):
            return None
        return gpa if gpa != 0 else None

    def fetch_subject(self, semester_id: int, subject: SubjectSimple
                      ) -> Optional[Tuple[SubjectDetail, List[EvaluationProject]]]:
        """获取单科计算所需的全部数据，任一步失败或没有学习任务时返回 None"""
        try:
            task_ids = self.get_task_ids(semester_id, subject.id)
            if not task_ids:
                print(f"{'[Fetch]':<15}: {subject.name} has no learning tasks, skipped")
                return None
            detail = self.get_task_detail(task_ids[0])
            projects = self.get_dynamic_score_detail(detail.class_id, subject.id, semester_id)
        except (ApiError, requests.exceptions.RequestException) as e:
            print(f"{'[Fetch]':<15}: {subject.name} skipped - {e}")
            return None
        return detail, projects
