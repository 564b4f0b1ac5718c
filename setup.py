import setuptools
from setuptools import setup

setup(name='resource-labels-python',
      version='1.0.0',
      package_dir={"": "resource-labels-python"},
      packages=setuptools.find_namespace_packages(where='resource-labels-python', include=['resource_labels*']),
      python_requires='>=3.8',
      install_requires=[
            'decorator',
            'pytest',
            'python-json-logger',
            'opentelemetry-api>=1.20',
            'opentelemetry-sdk>=1.20',
            'prometheus-client',
      ]
)
