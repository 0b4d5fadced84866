from setuptools import setup, find_packages

setup(name='pyroomlock',
      version='0.1.0',
      description='PIN lock for Cisco video endpoints driven over xAPI',
      url='https://github.com/pyroomlock/pyroomlock',
      license='MIT',
      python_requires='>=3.8',
      install_requires=['requests>=2.0'],
      extras_require={
          'test': ['pytest', 'responses', 'coverage', 'pytest-cov'],
          'examples': ['flask'],
      },
      packages=find_packages(exclude=['tests', 'tests.*']),
      zip_safe=True)
