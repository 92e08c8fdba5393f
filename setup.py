"""
Setup script for coursework.

Coursework is the engine behind a small learning-management system:

1. Course catalog - courses and their learning materials
2. Enrollment - requests, staff review and progress to completion
3. Assessments - timed multiple-choice attempts, one per student
4. Certificates - completion certificates verified by an admin
5. Analytics - completion, performance and engagement reports

The 'coursework' command is the operator CLI; the API runs with
'coursework serve' or 'python main.py'.
"""

from setuptools import find_packages, setup

setup(
    name="coursework",
    version="1.0.0",
    description="Learning-management engine: enrollment, timed assessments and certificates",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config", "main"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # API
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "coursework=coursework.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Framework :: FastAPI",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
    ],
    keywords="learning lms enrollment assessment certificates",
)
