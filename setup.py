from setuptools import setup, find_packages

setup(
    name="g2a-integration",
    version="1.0.0",
    description="Resilient async client for the G2A partner Export and Import APIs, with batch, sync and webhook helpers.",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=["g2a_integration", "g2a_integration.*"]),
    include_package_data=True,
    install_requires=[
        "httpx>=0.25",
        "pydantic>=2.0",
        "redis>=5.0.1",
        "prometheus_client>=0.17",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    python_requires=">=3.9",
    keywords="g2a marketplace partner api client rate limiting circuit breaker webhooks",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Operating System :: OS Independent",
        "License :: OSI Approved :: MIT License"
    ],
)
