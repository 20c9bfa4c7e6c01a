from setuptools import find_packages, setup

setup(
    name="article-spinner",
    version="0.1.0",
    description="Generate batches of scheduled articles through a staged AI content pipeline",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "requests>=2.32.0",
        "beautifulsoup4>=4.12.0",
        "fastapi>=0.110.0",
        "pydantic>=2.0",
        "uvicorn>=0.29.0",
    ],
    extras_require={
        "dev": ["pytest>=8.2.0", "httpx>=0.27.0"],
    },
    entry_points={
        "console_scripts": [
            "article-spinner=article_spinner.cli:main",
        ]
    },
)
