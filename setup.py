# setup.py - 项目打包配置

from setuptools import setup, find_packages

setup(
    name="tictactoe-arena",
    version="0.1.0",
    description="Multiplayer tic tac toe lobby and matchmaking server",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[],
    extras_require={
        "dev": [
            "black==23.9.1",
            "flake8==6.1.0",
            "isort==5.12.0",
            "pytest==7.4.0",
            "pytest-cov==4.1.0",
            "pre-commit==3.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tictactoe-server=tictactoe.server.main:main",
            "tictactoe-client=tictactoe.client.main:main",
        ],
    },
)
