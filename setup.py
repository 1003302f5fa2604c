from setuptools import setup, find_packages

setup(
    name="edit_session",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pyyaml",
        "textual",
        "tqdm>=4.60",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "edit-session=edit_session.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Streaming AI edit sessions with diff review, transactions and undo.",
)
