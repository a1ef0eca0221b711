"""
myxb - 校宝成绩查询与 GPA 计算

    myxb               计算学期 GPA（使用已保存的凭据）
    myxb login         登录并保存凭据
    myxb logout        清除已保存的凭据
"""

import argparse
import getpass
from datetime import datetime
from typing import List, Optional

import requests

import credentials
from calculator import GPACalculator
from models import Semester, Subject
from report import render_subject, render_summary
from school_client import ApiError, SchoolClient, first_hash
from score_mapping import ConfigError, load_score_mappings


# 最多显示的学期数
MAX_DISPLAY_SEMESTERS = 10

# 名称包含该关键词的科目按选修课（半学分）计算
ELECTIVE_COURSE_KEYWORD = "Ele"


def create_client(creds: Optional[credentials.Credentials] = None) -> SchoolClient:
    if creds is None:
        return SchoolClient()
    return SchoolClient(request_timeout=creds.request_timeout, debug_http=creds.debug_http)


def prompt_captcha(captcha_path: str) -> str:
    if not captcha_path:
        print(f"{'[Login]':<15}: Captcha data received but could not be saved.")
    return input("Enter captcha code: ")


def ensure_login() -> Optional[SchoolClient]:
    """用已保存的凭据登录，失败时删除凭据"""
    try:
        creds = credentials.load_credentials()
    except (OSError, ValueError) as e:
        print(f"{'[Login]':<15}: Failed to load credentials - {e}")
        return None

    if creds is None:
        print(f"{'[Login]':<15}: Not logged in")
        return None

    print(f"{'[Login]':<15}: Using saved credentials for: {creds.username}")
    client = create_client(creds)
    try:
        client.login_with_captcha(creds.username, creds.password_hash)
    except (ApiError, requests.exceptions.RequestException) as e:
        print(f"{'[Login]':<15}: Saved credentials failed - {e}")
        print(f"{'[Login]':<15}: Please login again")
        credentials.delete_credentials()
        client.close()
        return None

    print(f"{'[Login]':<15}: Authentication successful")
    return client


def select_semester(semesters: List[Semester], index: Optional[int] = None) -> Optional[Semester]:
    """列出学期（最新在下方），返回选中的学期；输入非法时返回 None"""
    display_count = min(len(semesters), MAX_DISPLAY_SEMESTERS)
    current_index = -1
    for i in range(display_count - 1, -1, -1):
        suffix = ""
        if semesters[i].is_now:
            suffix = " (current)"
            current_index = i
        print(f"[{i}] {semesters[i].display_name}{suffix}")
    print()

    if index is None:
        if current_index >= 0:
            text = input(f"Select a semester to calculate GPA for (default [{current_index}]): ").strip()
        else:
            text = input("Select a semester to calculate GPA for: ").strip()

        if not text and current_index >= 0:
            index = current_index
        else:
            try:
                index = int(text)
            except ValueError:
                return None

    if index < 0 or index >= len(semesters):
        return None
    return semesters[index]


def calculate_semester(client: SchoolClient, calculator: GPACalculator, semester: Semester,
                       show_tasks: bool = False) -> None:
    """计算并输出一个学期的 GPA"""
    print(f"{'[Fetch]':<15}: Fetching subjects...")
    subjects = client.get_subject_list(semester.id)
    print(f"{'[Fetch]':<15}: Found {len(subjects)} subjects")

    print(f"{'[Fetch]':<15}: Fetching semester-wide scores...")
    try:
        dynamic_scores = client.get_semester_dynamic_score(semester.id)
    except (ApiError, requests.exceptions.RequestException) as e:
        print(f"{'[Fetch]':<15}: Semester-wide scores unavailable - {e}")
        dynamic_scores = []
    dynamic_by_subject = {info.subject_id: info for info in dynamic_scores}

    print(f"{'[Fetch]':<15}: Fetching scores for each subject...")
    print()
    processed: List[Subject] = []
    for subject in subjects:
        fetched = client.fetch_subject(semester.id, subject)
        if fetched is None:
            continue
        detail, projects = fetched
        is_elective = ELECTIVE_COURSE_KEYWORD in subject.name
        processed.append(calculator.process_subject(
            detail, projects, dynamic_by_subject.get(subject.id), is_elective
        ))

    for subject in processed:
        print(render_subject(calculator, subject, show_tasks))
        print()

    print(f"{'[Calculate]':<15}: Calculating final GPA...")
    result = calculator.calculate_gpa(processed)

    official_gpa = None
    if result.is_defined:
        try:
            official_gpa = client.get_gpa(semester.id)
        except (ApiError, requests.exceptions.RequestException) as e:
            print(f"{'[Fetch]':<15}: Official GPA unavailable - {e}")

    print("-" * 46)
    print(render_summary(result, official_gpa))


def run_gpa(args) -> int:
    try:
        calculator = GPACalculator(load_score_mappings(args.mapping))
    except ConfigError as e:
        print(f"{'[Config]':<15}: {e}")
        return 1

    client = ensure_login()
    if client is None:
        print(f"{'[Login]':<15}: You need to login first. Run: myxb login")
        return 1

    print(f"{'[Start]':<15}: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 60)
    try:
        print(f"{'[Fetch]':<15}: Fetching semesters...")
        semesters = client.get_semesters()
        if not semesters:
            print(f"{'[Error]':<15}: No semesters found")
            return 1
        print()

        semester = select_semester(semesters, args.semester)
        if semester is None:
            print(f"{'[Error]':<15}: Invalid semester selection")
            return 1

        print()
        print(f"{'[Calculate]':<15}: Calculating GPA for {semester.display_name}")
        calculate_semester(client, calculator, semester, args.tasks)
        return 0
    except (ApiError, requests.exceptions.RequestException) as e:
        print(f"{'[Error]':<15}: {e}")
        return 1
    finally:
        client.close()


def run_login(args) -> int:
    print("Your credentials will be saved locally for future use.")
    print()
    username = input("Username: ").strip()
    password = getpass.getpass("Password: ").strip()
    if not username or not password:
        print(f"{'[Login]':<15}: Username and password are required")
        return 1

    password_hash = first_hash(password)
    client = create_client()
    try:
        client.login_with_captcha(username, password_hash, prompt_captcha=prompt_captcha)
    except (ApiError, requests.exceptions.RequestException) as e:
        print(f"{'[Login]':<15}: Login failed - {e}")
        return 1
    finally:
        client.close()

    print(f"{'[Login]':<15}: Login successful")
    try:
        config_path = credentials.save_credentials(
            credentials.Credentials(username=username, password_hash=password_hash)
        )
    except OSError as e:
        print(f"{'[Login]':<15}: Failed to save credentials - {e}")
        return 1

    print(f"{'[Login]':<15}: Credentials saved to: {config_path}")
    print("You can now run 'myxb' to calculate your GPA")
    return 0


def run_logout(args) -> int:
    try:
        removed = credentials.delete_credentials()
    except OSError as e:
        print(f"{'[Logout]':<15}: Failed to delete credentials - {e}")
        return 1

    if not removed:
        print(f"{'[Logout]':<15}: No saved credentials found")
        return 0

    print(f"{'[Logout]':<15}: Credentials cleared: {credentials.get_config_path()}")
    print("Run 'myxb login' to login again")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="myxb", description="GPA Calculator & Score Tracker for Xiaobao")
    parser.add_argument("-t", "--tasks", action="store_true", help="Show detailed task information for each subject")
    parser.add_argument("-s", "--semester", type=int, default=None, help="Semester index to calculate (skips the prompt)")
    parser.add_argument("--mapping", default=None, help="Path to the score mapping YAML file")
    parser.set_defaults(func=run_gpa)

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("login", help="Login and save credentials").set_defaults(func=run_login)
    subparsers.add_parser("logout", help="Clear saved credentials").set_defaults(func=run_logout)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except KeyboardInterrupt:
        print(f"\n{'[Interrupted]':<15}: Cancelled by user")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
