"""Setup script for the Staff Attendance Engine package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read README if it exists
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="staff-attendance-engine",
    version="0.1.0",
    description="Face matching, enrollment duplicate detection and check-in/check-out logic for staff attendance kiosks",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Staff Attendance Team",
    packages=find_packages(exclude=["tests*", "docs*"]),
    python_requires=">=3.9",
    install_requires=[
        "insightface>=0.7.3",
        "onnxruntime>=1.16.3",
        "opencv-python>=4.9.0",
        "numpy>=1.26.0",
        "scipy>=1.11.0",
        "pandas>=2.2.0",
        "pyarrow>=15.0.0",
        "tqdm>=4.66.0",
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "black",
            "flake8",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "staffattend-identify=scripts.identify_face:main",
            "staffattend-validate=scripts.validate_enrollment:main",
            "staffattend-enroll=scripts.enroll_staff:main",
            "staffattend-log=scripts.log_attendance:main",
            "staffattend-build-roster=scripts.build_roster:main",
            "staffattend-export=scripts.export_attendance:main",
            "staffattend-staff=scripts.manage_staff:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
