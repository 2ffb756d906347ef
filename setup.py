from setuptools import setup, find_packages

setup(
    name="zkmixer",
    version="0.1.0",
    description="ZK-Mixer: fixed-denomination mixer over a Merkle commitment accumulator",
    author="ZK-Mixer Team",
    author_email="team@zk-mixer.dev",
    url="https://github.com/zk-project/zkmixer",
    license="MIT",
    python_requires=">=3.9",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy>=2.0.0",
        "python-dotenv>=1.0.0",
        "PyJWT>=2.8.0",
    ],
    extras_require={
        "dev": [
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
            "isort>=5.12.0",
        ],
        "api": [
            "fastapi>=0.95.0",
            "uvicorn>=0.21.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "hypothesis>=6.0.0",
            "httpx>=0.24.0",
            "fastapi>=0.95.0",
            "uvicorn>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "zkmixer-api=zkmixer.api.routes:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
