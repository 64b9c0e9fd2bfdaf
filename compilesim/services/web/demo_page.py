DEMAND_TEST_INTERVAL_MS = 5000
BROWSER_TIMEOUT_MS = 20000

DEMO_PAGE = f"""<!doctype html>
<html>
  <head>
    <title>Compiler Demo</title>
    <script>
      let inFlight = 0
      let demandTestTimer = null

      async function compile() {{
        ++inFlight
        const url = new URL('/compile', window.location.origin)
        try {{
          const response = await fetch(url, {{
            method: 'POST',
            headers: {{ Accept: 'application/json' }},
            signal: AbortSignal.timeout({BROWSER_TIMEOUT_MS}),
          }})
          if (response.ok) {{
            logResult('Success! ' + JSON.stringify(await response.json()))
          }} else {{
            logResult('request failed with status ' + response.status)
          }}
        }} catch (err) {{
          if (err.name === 'TimeoutError' || err.name === 'AbortError') {{
            logResult('request timed out after {BROWSER_TIMEOUT_MS // 1000}s')
          }} else {{
            logResult(err.name + ': ' + err.message)
          }}
        }} finally {{
          --inFlight
        }}
      }}

      function toggleDemandTest() {{
        const button = document.querySelector('#demand-test')
        if (demandTestTimer) {{
          clearInterval(demandTestTimer)
          demandTestTimer = null
          button.textContent = 'Generate Compiles'
          return
        }}
        compile().catch(alert)
        demandTestTimer = setInterval(() => compile().catch(alert), {DEMAND_TEST_INTERVAL_MS})
        button.textContent = 'Stop Generating Compiles'
      }}

      function logResult(text) {{
        if (inFlight > 1) text += ' (' + (inFlight - 1) + ' other requests in flight)'
        const row = document.createElement('p')
        row.textContent = text
        document.querySelector('#output').append(row)
      }}
    </script>
  </head>
  <body>
    <h1>Compiler Demo</h1>
    <p><button onclick="compile().catch(alert)">Run a Simulated Compile</button></p>
    <p>
      <button id="demand-test" onclick="toggleDemandTest()">Generate Compiles</button>
      (1 compile every {DEMAND_TEST_INTERVAL_MS // 1000}s)
    </p>
    <h2>Output</h2>
    <pre id="output"></pre>
  </body>
</html>
"""
