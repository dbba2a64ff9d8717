from setuptools import setup, find_packages

setup(
    name="ingress-balancer",
    version="0.1.0",
    packages=find_packages(include=["ingress_balancer*"]),
    package_data={"ingress_balancer": ["templates/*.tmpl"]},
    py_modules=["main"],
    install_requires=[
        "requests>=2.31.0",
        "urllib3>=2.0.0",
        "watchdog>=6.0.0",
        "Jinja2>=3.1.0",
        "prometheus-client>=0.17.0",
    ],
    python_requires=">=3.8",
    extras_require={
        'test': [
            'pytest>=7.4.3',
            'pytest-cov>=4.1.0',
            'pytest-timeout>=2.2.0',
            'responses>=0.24.1'
        ]
    }
)
